import json
import logging

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
log = logging.getLogger("promo")


# ===== Tiny JSON logger =====
def jlog(event: str, level=logging.INFO, **kv):
    rec = {"evt": event, **kv}
    try:
        log.log(level, json.dumps(rec, ensure_ascii=False, separators=(",", ":"), default=str))
    except (TypeError, ValueError):
        log.log(level, "[LOG_FALLBACK] %s %s", event, kv)


def mask_mobile(mobile):
    mobile = mobile or ""
    if len(mobile) < 6:
        return "***"
    return mobile[:3] + "***" + mobile[-2:]
