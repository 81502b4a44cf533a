import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from llm_core.config.settings import settings


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if settings.log_redact_content:
            msg = (msg or "")[:64]
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": msg,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger() -> logging.Logger:
    logger = logging.getLogger("llm_core")
    logger.setLevel(settings.log_level)
    # 重复导入/重复调用时不叠加 handler
    if any(getattr(h, "_llm_core_json", False) for h in logger.handlers):
        return logger
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / "llm_core.log", encoding="utf-8")
    fh.setLevel(settings.log_level)
    fh.setFormatter(JsonFormatter())
    fh._llm_core_json = True  # type: ignore[attr-defined]
    logger.addHandler(fh)
    return logger


logger = setup_logger()
