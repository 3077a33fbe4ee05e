import sys, logging
from logging.handlers import RotatingFileHandler
from tqdm import tqdm

ROOT = "onuprobe"

class TqdmStreamHandler(logging.StreamHandler):
    def emit(self, record):
        try:
            msg = self.format(record)
            tqdm.write(msg, file=sys.stderr)
            self.flush()
        except Exception:
            self.handleError(record)

def setup_logging(*, level: str="INFO", quiet: bool=False, log_file: str|None=None, use_tqdm_handler: bool=True):
    log = logging.getLogger(ROOT)
    log.setLevel(level.upper())
    for h in list(log.handlers):
        log.removeHandler(h)

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    if not quiet:
        h = TqdmStreamHandler() if use_tqdm_handler else logging.StreamHandler(stream=sys.stderr)
        h.setLevel(level.upper())
        h.setFormatter(fmt)
        log.addHandler(h)

    if quiet and not log_file:
        log.addHandler(logging.NullHandler())

    if log_file:
        fh = RotatingFileHandler(log_file, maxBytes=5_000_000, backupCount=3, encoding="utf-8")
        fh.setLevel(level.upper())
        fh.setFormatter(fmt)
        log.addHandler(fh)

    # telnetlib3 is chatty about option negotiation
    logging.getLogger("telnetlib3").setLevel(logging.ERROR)
    return log

def get_logger(name: str|None=None):
    """Logger under the package namespace; module names are nested below it."""
    if not name or name == ROOT:
        return logging.getLogger(ROOT)
    if name.startswith(ROOT + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT}.{name}")

def mask(secret: str|None, keep: int=2) -> str:
    """Shorten a password/session key for log output."""
    if not secret:
        return ""
    return secret[:keep] + "***"
