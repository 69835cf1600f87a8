from pathlib import Path
import logging
import os

from dotconverge.logging.log import init_logging, prune_logs


def test_init_logging_writes_trace_file(tmp_path: Path):
    logger, run_id, log_path = init_logging(base_dir=tmp_path, name="dc-test-log")
    logger.debug("probe zsh_installed=True")
    for h in logger.handlers:
        h.flush()

    assert log_path.parent == tmp_path
    assert run_id in log_path.name
    text = log_path.read_text()
    assert "probe zsh_installed=True" in text
    console = [h for h in logger.handlers if not isinstance(h, logging.FileHandler)]
    assert console[0].level == logging.WARNING


def test_verbose_console_and_prefix(tmp_path: Path):
    logger, _, log_path = init_logging(base_dir=tmp_path, name="dc-test-log2", prefix="dotfiles", verbose=True)
    assert log_path.name.startswith("dotfiles-")
    console = [h for h in logger.handlers if not isinstance(h, logging.FileHandler)]
    assert console[0].level == logging.DEBUG
    # re-initialising replaces handlers instead of stacking them
    logger, _, _ = init_logging(base_dir=tmp_path, name="dc-test-log2")
    assert len(logger.handlers) == 2


def test_prune_keeps_newest(tmp_path: Path):
    for i in range(5):
        p = tmp_path / f"dotconverge-2026010{i}-x.log"
        p.write_text("x")
        os.utime(p, (1000 + i, 1000 + i))
    (tmp_path / "dotfiles-20260101-x.log").write_text("other prefix")

    removed = prune_logs(tmp_path, "dotconverge", keep=2)

    assert len(removed) == 3
    left = sorted(p.name for p in tmp_path.glob("dotconverge-*.log"))
    assert left == ["dotconverge-20260103-x.log", "dotconverge-20260104-x.log"]
    assert (tmp_path / "dotfiles-20260101-x.log").exists()
