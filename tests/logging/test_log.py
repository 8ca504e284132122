import logging

from clusterforge.logging.log import init_logging


def _close(logger):
    for h in list(logger.handlers):
        h.close()
    logger.handlers.clear()


def test_log_lines_carry_cluster_name(tmp_path):
    logger, run_id, log_path = init_logging(base_dir=tmp_path, name="clusterforge-test", cluster_name="kf-mgmt")
    try:
        logging.getLogger("clusterforge-test").warning("stage %s failed", "git-init")
        for h in logger.handlers:
            h.flush()
        text = log_path.read_text()
    finally:
        _close(logger)

    assert log_path.name.startswith("clusterforge-test-kf-mgmt-")
    assert run_id in log_path.name
    assert "| kf-mgmt | stage git-init failed" in text
    assert f"run_id={run_id}" in text


def test_log_without_cluster_uses_placeholder(tmp_path):
    logger, _, log_path = init_logging(base_dir=tmp_path, name="clusterforge-test")
    try:
        logger.info("hello")
        for h in logger.handlers:
            h.flush()
        text = log_path.read_text()
    finally:
        _close(logger)

    assert "| - | hello" in text
