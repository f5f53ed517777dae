import logging

from memsieve.services.logger import LogBuffer


def test_log_buffer_keeps_recent_lines(caplog):
    buffer = LogBuffer(3)
    with caplog.at_level(logging.INFO, logger="memsieve"):
        for index in range(5):
            buffer.add(f"line {index}")
    lines = buffer.get()
    assert len(lines) == 3
    assert lines[-1].endswith("line 4")
    assert "line 4" in caplog.text
    buffer.clear()
    assert buffer.get() == []
