from cnabazure.errors import DriverError
from cnabazure.services.teardown import TeardownStack


def test_actions_run_in_reverse_order(dummy_logger, dummy_console):
    order = []
    teardown = TeardownStack(logger=dummy_logger, error_console=dummy_console)
    teardown.push("delete resource group", lambda: order.append("resource group"))
    teardown.push("delete container group", lambda: order.append("container group"))

    failures = teardown.run()

    assert order == ["container group", "resource group"]
    assert failures == []
    assert len(teardown) == 0


def test_failures_are_reported_and_do_not_stop_teardown(dummy_logger, dummy_console):
    order = []

    def fail():
        raise DriverError("throttled")

    teardown = TeardownStack(logger=dummy_logger, error_console=dummy_console)
    teardown.push("delete resource group", lambda: order.append("resource group"))
    teardown.push("delete container group", fail)

    failures = teardown.run()

    assert failures == ["delete container group"]
    assert order == ["resource group"]
    assert any("throttled" in message for message in dummy_console.messages)
    assert any("throttled" in message for message in dummy_logger.warnings)
