from .config import load_config
from .extensions import init_extensions
from .logging_config import configure_logging


def create_app():
    """App factory entrypoint.

    Runtime clients and request hooks live in ``linkstream.runtime``; the
    factory validates config, configures logging and wires the blueprints.
    """
    config = load_config()
    configure_logging(config.log_level)

    from .runtime import app

    init_extensions(app)
    return app
