# stocksync/utils/logger.py
import logging
import os

LEVELS = {"ERROR": logging.ERROR, "WARN": logging.WARNING, "INFO": logging.INFO,
          "DEBUG": logging.DEBUG, "NONE": logging.CRITICAL + 10}

log = logging.getLogger("stocksync")
log.setLevel(LEVELS.get(os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO))


def set_level(name: str):
    log.setLevel(LEVELS.get((name or "INFO").upper(), logging.INFO))


def debug(msg): log.debug(msg)
def info(msg):  log.info(msg)
def warn(msg):  log.warning(msg)
def error(msg): log.error(msg)
