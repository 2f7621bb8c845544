"""Main entry point for the autocaptcha server"""

import logging

from autocaptcha_core.config import config
from autocaptcha_server.app import app
from autocaptcha_server.service import EXTENSION_KEY

logger = logging.getLogger(__name__)


def main():
    """Run the autocaptcha API server"""
    service = app.extensions[EXTENSION_KEY]
    provider_config = service.store.get_api_config()
    logger.info(f"Starting autocaptcha API server on port {config.api_port}...")
    logger.info(f"Store: {service.store.path}")
    logger.info(f"Active provider: {provider_config.kind}")
    app.run(host='0.0.0.0', port=config.api_port, debug=config.enable_debug, use_reloader=False)


if __name__ == '__main__':
    main()
