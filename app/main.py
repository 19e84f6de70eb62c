import signal

from dotenv import load_dotenv

from infrastructure.logging import configure_logging, get_module_logger
from infrastructure.services import get_settings
from jobs import scheduled_tasks
from modules.post_commit import build_recovery_services

load_dotenv()

logger = get_module_logger()


def main():
    """Start the post-commit recovery scheduler and block until signalled."""
    configure_logging()
    settings = get_settings()

    logger.info("application_startup", prefix=settings.PREFIX, git_sha=settings.GIT_SHA)
    list_configs(settings)

    services = build_recovery_services(settings)
    scheduled_tasks.init(services, settings)
    stop_run_continuously = scheduled_tasks.run_continuously()

    def shutdown(signum, _frame):
        logger.info("application_shutdown", signal=signum)
        stop_run_continuously.set()

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)
    stop_run_continuously.wait()


def list_configs(settings):
    """List all configuration settings keys"""
    config_settings = {"settings": []}

    for key, value in settings.model_dump().items():
        if isinstance(value, dict):
            config_settings[key] = list(value.keys())
        else:
            config_settings["settings"].append({key: value})

    logger.info("configuration_initialized", base_settings=config_settings["settings"])
    for key, value in config_settings.items():
        if key != "settings":
            logger.info("configuration_loaded", config_setting=key, keys=value)


if __name__ == "__main__":
    main()
