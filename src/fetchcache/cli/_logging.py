import logging
import sys

_THIRD_PARTY_LOGGERS = ("httpx", "httpcore", "boto3", "botocore", "s3transfer", "urllib3", "filelock")


def configure_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Send log records to stderr so cached bodies on stdout stay clean.

    ``verbose`` shows cache hits, misses and write-backs (DEBUG) along with
    the HTTP and S3 client chatter. ``quiet`` keeps only warnings and errors,
    such as soft misses caused by unreadable entries.
    """
    root = logging.getLogger()
    root.handlers.clear()
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    root.setLevel(level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s", datefmt="%H:%M:%S"))
    root.addHandler(handler)

    third_party_level = logging.NOTSET if verbose else logging.WARNING
    for name in _THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)
