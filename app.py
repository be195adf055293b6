#!/usr/bin/env python3
"""gemini-bridge - serve the Gemini v1beta API on top of the OpenAI Responses API."""

import sys
import logging

from flask import Flask
from flask_cors import CORS
from dotenv import load_dotenv

from config import Config
from logger_manager import LoggerManager
from handlers import gemini_bp
from handlers.status_api import status_bp

logger = logging.getLogger(__name__)


def configure_logging(level: str = 'INFO'):
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )


def create_app(config: Config = None) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    CORS(app)

    config = config or Config()
    app.config['BRIDGE_CONFIG'] = config
    app.config['LOG_MANAGER'] = LoggerManager()

    app.register_blueprint(gemini_bp)
    app.register_blueprint(status_bp)

    @app.route('/health')
    def health():
        return {'status': 'ok'}

    logger.info(f"gemini-bridge ready | target={config.target_endpoint} | strict={config.strict_mode}")
    return app


def main():
    """Main entry point."""
    # Load environment variables from .env file
    load_dotenv()
    config = Config()
    configure_logging(config.log_level)
    app = create_app(config)

    print()
    print("=" * 60)
    print("  gemini-bridge - Gemini v1beta on OpenAI Responses")
    print("=" * 60)
    print()
    print(f"  Base URL:   http://localhost:{config.port}/v1beta")
    print(f"  Target:     {config.target_endpoint}/responses")
    print(f"  Strict:     {'Enabled' if config.strict_mode else 'Disabled'}")
    print()
    print("  To use with a Gemini client, set:")
    print()
    print(f"    export GOOGLE_GEMINI_BASE_URL='http://localhost:{config.port}'")
    print(f"    export GEMINI_API_KEY='{config.proxy_access_token}'")
    print()
    print("=" * 60)
    print()

    try:
        app.run(
            host='0.0.0.0',
            port=config.port,
            debug=False,
            threaded=True
        )
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
