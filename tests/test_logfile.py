import os
import re
import threading
import time

import pytest

from reactornet.logfile import LogFile, log_file_name
from reactornet.threads import current_tid


def _content(tmp_path, name):
    files = sorted(tmp_path.glob(f"{name}.*.log"))
    return b"".join(path.read_bytes() for path in files)


def test_new_log_file_starts_with_thread_header(tmp_path):
    with LogFile(str(tmp_path / "app"), 1024 * 1024) as log:
        log.flush()
    content = _content(tmp_path, "app")
    assert content == b"Writed by t" + str(current_tid()).encode() + b"\n"


def test_appended_data_reaches_the_file(tmp_path):
    with LogFile(str(tmp_path / "app"), 1024 * 1024) as log:
        log.append(b"first line\n")
        log.append("second line\n")
        log.flush()
        content = _content(tmp_path, "app")
    assert content.endswith(b"first line\nsecond line\n")


def test_exceeding_roll_size_starts_a_new_file(tmp_path):
    with LogFile(str(tmp_path / "roll"), 1) as log:
        log.append(b"abc")
        log.flush()
        assert _content(tmp_path, "roll").count(b"Writed by t") == 2
        log.append(b"def")
    content = _content(tmp_path, "roll")
    assert content.count(b"Writed by t") == 3
    assert b"abc" in content
    assert b"def" in content


def test_thread_safe_appends_keep_every_line(tmp_path):
    log = LogFile(str(tmp_path / "mt"), 100 * 1024 * 1024, thread_safe=True)

    def worker():
        for _ in range(250):
            log.append(b"line\n")

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    log.close()
    assert _content(tmp_path, "mt").count(b"line\n") == 4 * 250


def test_log_file_name_format():
    now = time.time()
    name = log_file_name("base", now)
    assert re.fullmatch(r"base\.\d{8}-\d{6}\..+\.p\d+\.log", name)
    assert name.endswith(f".p{os.getpid()}.log")


def test_append_after_close_raises(tmp_path):
    log = LogFile(str(tmp_path / "closed"), 1024)
    log.append(b"kept\n")
    log.close()
    assert _content(tmp_path, "closed").endswith(b"kept\n")
    with pytest.raises(ValueError):
        log.append(b"lost\n")