import threading
import time

import pytest

from labkit.transactionlog import (
    Event,
    FileTransactionLogger,
    TransactionLogError,
)


def read_all(path):
    with FileTransactionLogger(path) as logger:
        return logger.read_events()


def test_file_transaction_logger(tmp_path):
    log_file = tmp_path / "translog_test.log"
    log_file.write_text("")
    stop = threading.Event()
    logger1 = FileTransactionLogger(log_file)
    logger1.run(stop)
    try:
        logger1.write("a", "1")
        logger1.write("b", "2")
        logger1.write("a", "3")
        time.sleep(0.2)

        events = read_all(log_file)
        assert [(e.type, e.value) for e in events] == [("a", "1"), ("b", "2"), ("a", "3")]

        logger1.write("c", "4")
        time.sleep(0.2)

        events = read_all(log_file)
        assert [(e.type, e.value) for e in events] == [
            ("a", "1"),
            ("b", "2"),
            ("a", "3"),
            ("c", "4"),
        ]
        assert [e.sequence for e in events] == [1, 2, 3, 4]
        assert logger1.errors().empty()
    finally:
        stop.set()


def test_record_format(tmp_path):
    log_file = tmp_path / "log"
    stop = threading.Event()
    logger = FileTransactionLogger(log_file)
    logger.run(stop)
    logger.write("put", '{"key":"k"}')
    time.sleep(0.2)
    stop.set()
    assert log_file.read_text() == '1\tput\t{"key":"k"}\n'


def test_sequence_continues_after_replay(tmp_path):
    log_file = tmp_path / "log"
    log_file.write_text("1\ta\t1\n2\tb\t2\n")
    stop = threading.Event()
    logger = FileTransactionLogger(log_file)
    assert logger.read_events() == [Event(1, "a", "1"), Event(2, "b", "2")]
    logger.run(stop)
    logger.write("c", "3")
    time.sleep(0.2)
    stop.set()
    assert read_all(log_file)[-1] == Event(3, "c", "3")


def test_out_of_sequence(tmp_path):
    log_file = tmp_path / "log"
    log_file.write_text("2\ta\t1\n1\tb\t2\n")
    with FileTransactionLogger(log_file) as logger:
        with pytest.raises(TransactionLogError, match="out of sequence"):
            logger.read_events()


def test_parse_error(tmp_path):
    log_file = tmp_path / "log"
    log_file.write_text("x\ta\t1\n")
    with FileTransactionLogger(log_file) as logger:
        with pytest.raises(TransactionLogError, match="input parse error"):
            logger.read_events()


def test_write_before_run(tmp_path):
    with FileTransactionLogger(tmp_path / "log") as logger:
        with pytest.raises(TransactionLogError):
            logger.write("a", "1")


def test_empty_log(tmp_path):
    assert read_all(tmp_path / "new.log") == []