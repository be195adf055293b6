"""Configuration management for gemini-bridge."""

import os
import secrets
import logging

logger = logging.getLogger(__name__)


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self):
        # Proxy settings
        self.port = int(os.getenv('PROXY_PORT', '5000'))
        self.proxy_access_token = os.getenv('PROXY_ACCESS_TOKEN') or self._generate_token()

        # Target endpoint (OpenAI Responses API)
        self.target_endpoint = os.getenv('TARGET_ENDPOINT', 'https://api.openai.com/v1').rstrip('/')
        # Check TARGET_API_KEY, fall back to OPENAI_API_KEY
        self.target_api_key = os.getenv('TARGET_API_KEY') or os.getenv('OPENAI_API_KEY')

        # Model configuration
        self.model_mapping = self._parse_model_mapping(os.getenv('MODEL_MAPPING', ''))
        default_max_tokens = os.getenv('DEFAULT_MAX_TOKENS', '')
        self.default_max_tokens = int(default_max_tokens) if default_max_tokens else None

        # Upstream timeouts in seconds
        self.request_timeout = int(os.getenv('REQUEST_TIMEOUT', '120'))
        self.stream_timeout = int(os.getenv('STREAM_TIMEOUT', '600'))

        # Behavior
        self.skip_ssl_verify = os.getenv('SKIP_SSL_VERIFY', 'false').lower() == 'true'
        # Raise on argument diagnostics instead of logging them
        self.strict_mode = os.getenv('GEMINI_V1BETA_STRICT', '') == '1'
        self.log_level = os.getenv('LOG_LEVEL', 'INFO').upper()

    def _parse_model_mapping(self, mapping_str: str) -> dict:
        """Parse model mapping from environment (format: source=target,source2=target2)."""
        mapping = {}
        if not mapping_str:
            return mapping

        for pair in mapping_str.split(','):
            if '=' in pair:
                source, target = pair.split('=', 1)
                mapping[source.strip()] = target.strip()

        return mapping

    def map_model_name(self, gemini_model: str) -> str:
        """
        Map a Gemini model name to the target model name.

        Accepts both 'gemini-2.5-pro' and 'models/gemini-2.5-pro'. Exact
        matches win; otherwise the first mapping key contained in the
        model name is used. Unmapped names pass through unchanged.
        """
        model = gemini_model[len('models/'):] if gemini_model.startswith('models/') else gemini_model

        if model in self.model_mapping:
            mapped = self.model_mapping[model]
            logger.info(f"Model mapping (exact): {model} -> {mapped}")
            return mapped

        model_lower = model.lower()
        for source, target in self.model_mapping.items():
            if source.lower() in model_lower:
                logger.info(f"Model mapping (partial): {model} -> {target}")
                return target

        logger.debug(f"No model mapping for {model}, passing through unchanged")
        return model

    def _generate_token(self) -> str:
        """Generate a random access token."""
        return f"gemini-bridge-{secrets.token_hex(32)}"

    def is_api_key_configured(self) -> bool:
        """Check if an upstream API key is configured."""
        return bool(self.target_api_key)

    def get_verify_ssl(self) -> bool:
        """Get SSL verification setting."""
        return not self.skip_ssl_verify

    def to_dict(self) -> dict:
        """Return configuration as dictionary, without secrets."""
        return {
            'port': self.port,
            'target_endpoint': self.target_endpoint,
            'model_mapping': self.model_mapping,
            'default_max_tokens': self.default_max_tokens,
            'request_timeout': self.request_timeout,
            'stream_timeout': self.stream_timeout,
            'api_key_configured': self.is_api_key_configured(),
            'ssl_verify': self.get_verify_ssl(),
            'strict_mode': self.strict_mode,
        }
