import logging
import logging.config
import os

# the solver stack and boto log a lot at INFO, we only want to hear about problems
QUIET_LOGGERS = ["cvxpy", "botocore", "boto3", "urllib3"]


def get_logging_config(log_level="INFO"):
    return {
        "version": 1,
        "disable_existing_loggers": True,
        "formatters": {"default": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"}},
        "handlers": {
            "default": {
                "level": "DEBUG",
                "formatter": "default",
                "class": "logging.StreamHandler",
            }
        },
        "loggers": {
            "elexconformal": {"handlers": ["default"], "level": log_level, "propagate": True},
            **{name: {"level": "WARNING"} for name in QUIET_LOGGERS},
        },
    }


def initialize_logging(logging_config=None):
    """
    Configures logging for the elexconformal package. The level is read from APP_LOG_LEVEL.
    Warnings that are not raised as errors are routed through logging.
    """
    if not logging_config:
        logging_config = get_logging_config(os.getenv("APP_LOG_LEVEL", "INFO"))
    logging.config.dictConfig(logging_config)
    logging.captureWarnings(True)
