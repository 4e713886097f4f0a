"""
Basic tests for resource tracking, teardown and tagging.
"""

import re
import signal
from unittest.mock import MagicMock, Mock

import pytest

from bastion.cleanup import ResourceTracker, install_signal_handlers, restore_signal_handlers
from bastion.tags import base_tags, new_session_id, tag_specifications
from bastion.tunnel import Tunnel


def make_tunnel(name, alive=True):
    process = MagicMock()
    process.poll.return_value = None if alive else 0
    return Tunnel(name, 1, "remote", 1, process)


class TestResourceTracker:
    """Test exactly-once teardown."""

    def test_close_stops_tunnels_and_terminates(self):
        ec2 = Mock()
        tracker = ResourceTracker(ec2)
        db, cache = make_tunnel("database"), make_tunnel("redis")
        tracker.track_instance("i-abc")
        tracker.track_tunnel(db)
        tracker.track_tunnel(cache)

        tracker.close()
        tracker.close()

        db.process.terminate.assert_called_once()
        cache.process.terminate.assert_called_once()
        ec2.terminate_instances.assert_called_once_with(InstanceIds=["i-abc"])

    def test_dead_tunnel_is_not_signalled(self):
        ec2 = Mock()
        tracker = ResourceTracker(ec2)
        tunnel = make_tunnel("database", alive=False)
        tracker.track_tunnel(tunnel)

        tracker.close()

        tunnel.process.terminate.assert_not_called()

    def test_no_instance_skips_termination(self):
        """Teardown before an instance exists makes no terminate call."""
        ec2 = Mock()

        with ResourceTracker(ec2):
            pass

        ec2.terminate_instances.assert_not_called()

    def test_cleanup_on_error(self):
        ec2 = Mock()
        tunnel = make_tunnel("database")

        with pytest.raises(RuntimeError, match="boom"):
            with ResourceTracker(ec2) as tracker:
                tracker.track_instance("i-abc")
                tracker.track_tunnel(tunnel)
                raise RuntimeError("boom")

        tunnel.process.terminate.assert_called_once()
        ec2.terminate_instances.assert_called_once_with(InstanceIds=["i-abc"])

    def test_tunnel_failure_does_not_block_instance(self):
        ec2 = Mock()
        tunnel = make_tunnel("database")
        tunnel.process.terminate.side_effect = OSError("gone")
        tracker = ResourceTracker(ec2)
        tracker.track_instance("i-abc")
        tracker.track_tunnel(tunnel)

        tracker.close()

        ec2.terminate_instances.assert_called_once()

    def test_terminate_failure_is_logged(self, caplog):
        ec2 = Mock()
        ec2.terminate_instances.side_effect = Exception("throttled")
        tracker = ResourceTracker(ec2)
        tracker.track_instance("i-abc")

        tracker.close()

        assert "i-abc" in caplog.text
        assert tracker.closed

    def test_interrupted_tunnel_stop_still_terminates(self):
        """Ctrl-C while a tunnel is being stopped does not leak the instance."""
        ec2 = Mock()
        tunnel = make_tunnel("database")
        tunnel.process.wait.side_effect = KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            with ResourceTracker(ec2) as tracker:
                tracker.track_instance("i-abc")
                tracker.track_tunnel(tunnel)
                raise RuntimeError("boom")
        tracker.close()

        ec2.terminate_instances.assert_called_once_with(InstanceIds=["i-abc"])

    def test_interrupted_termination_is_retried(self):
        ec2 = Mock()
        ec2.terminate_instances.side_effect = [KeyboardInterrupt, None]
        tracker = ResourceTracker(ec2)
        tracker.track_instance("i-abc")

        with pytest.raises(KeyboardInterrupt):
            tracker.close()
        assert not tracker.closed

        tracker.close()

        assert ec2.terminate_instances.call_count == 2
        assert tracker.closed

    def test_signals_ignored_during_teardown(self):
        seen = {}

        def record_handlers(**kwargs):
            seen["SIGINT"] = signal.getsignal(signal.SIGINT)
            seen["SIGTERM"] = signal.getsignal(signal.SIGTERM)

        ec2 = Mock()
        ec2.terminate_instances.side_effect = record_handlers
        tracker = ResourceTracker(ec2)
        tracker.track_instance("i-abc")
        sigint_before = signal.getsignal(signal.SIGINT)

        tracker.close()

        assert seen == {"SIGINT": signal.SIG_IGN, "SIGTERM": signal.SIG_IGN}
        assert signal.getsignal(signal.SIGINT) == sigint_before

    def test_teardown_is_reported_on_failure(self):
        messages = []

        with pytest.raises(RuntimeError):
            with ResourceTracker(Mock(), echo=messages.append) as tracker:
                tracker.track_instance("i-abc")
                raise RuntimeError("boom")

        assert messages[0] == "🧹 Cleaning up..."
        assert "Terminated instance i-abc" in messages[-1]

    def test_nothing_to_report_without_resources(self):
        messages = []

        with ResourceTracker(Mock(), echo=messages.append):
            pass

        assert messages == []


class TestSignals:

    def test_sigterm_becomes_system_exit(self):
        previous = install_signal_handlers()
        try:
            handler = signal.getsignal(signal.SIGTERM)
            with pytest.raises(SystemExit) as exc_info:
                handler(signal.SIGTERM, None)
            assert exc_info.value.code == 128 + signal.SIGTERM
        finally:
            restore_signal_handlers(previous)

        assert signal.getsignal(signal.SIGTERM) == previous[signal.SIGTERM]


class TestTags:

    def test_base_tags(self):
        tags = base_tags("b-20250101-120000-abcd")

        assert tags["Name"] == "bastion-b-20250101-120000-abcd"
        assert tags["project"] == "bastion"
        assert tags["created_at"].endswith("Z")

    def test_base_tags_with_extra(self):
        tags = base_tags("b-20250101-120000-abcd", {"owner": "dev"})
        assert tags["owner"] == "dev"

    def test_tag_specifications(self):
        specs = tag_specifications({"Name": "x"})

        assert [s["ResourceType"] for s in specs] == ["instance", "volume"]
        assert specs[0]["Tags"] == [{"Key": "Name", "Value": "x"}]


class TestSessionIds:

    def test_new_session_id_format(self):
        assert re.fullmatch(r"b-\d{8}-\d{6}-[a-z0-9]{4}", new_session_id())
