import uvicorn

from switchyard.utils.logging import resolve_logger, set_log_level
from switchyard.web.app import create_app
from switchyard.web.config import Settings, get_settings


def startup_banner(settings: Settings) -> list[str]:
    base = settings.public_base_url
    return [
        f"Switchyard listening on port {settings.port}",
        f"High priority webhook: {base}/webhook/high-priority",
        f"Low priority webhook: {base}/webhook/low-priority",
        f"Queue dashboard: {base}/admin/queues",
        f"Health check: {base}/health",
    ]


def main() -> None:
    s = get_settings()
    set_log_level(s.log_level)
    logger = resolve_logger(None, "runner")

    app = create_app(settings=s)
    for line in startup_banner(s):
        logger.info(line, queue_backend=s.queue_backend, workers=s.worker_count)

    uvicorn.run(
        app,
        host=str(s.host),
        port=int(s.port),
        log_level=s.log_level.lower(),
    )


if __name__ == "__main__":
    main()
