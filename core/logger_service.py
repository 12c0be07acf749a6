import logging

LOGGER_NAME = 'django'


def get_logger(name=None):
    """Return the project logger, or a child of it when ``name`` is given."""
    if name:
        return logging.getLogger(f'{LOGGER_NAME}.{name}')
    return logging.getLogger(LOGGER_NAME)
