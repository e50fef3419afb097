import unittest

from analysis.pipeline import describe_frame
from server.app import CONTROL_EVENT, create_app
from server.config import ServerConfig
from server.messages import INTERFACES, PACKET, SCAN_STARTED, SCAN_STOPPED, STATS_CLEARED, USER_STATS

import packet_builders as pb
from fakes import FakeBackend


def _control_messages(client):
    return [event["args"][0] for event in client.get_received() if event["name"] == CONTROL_EVENT]


class SocketIOControlChannelTests(unittest.TestCase):
    def setUp(self):
        self.backend = FakeBackend()
        self.app, self.socketio, self.engine = create_app(ServerConfig(snapshot_interval=60), self.backend)
        self.client = self.socketio.test_client(self.app)

    def tearDown(self):
        if self.client.is_connected():
            self.client.disconnect()
        self.engine.shutdown()

    def test_connect_receives_interfaces(self):
        [message] = _control_messages(self.client)
        self.assertEqual(message["type"], INTERFACES)
        self.assertEqual([i["name"] for i in message["interfaces"]], ["eth0", "wlan0"])

    def test_capture_round_trip(self):
        _control_messages(self.client)
        self.client.emit(CONTROL_EVENT, {"type": "start-scan", "interface": "eth0", "filter": "tcp"})
        self.backend.last_handle.feed(pb.tcp_frame(src="10.0.0.5", payload=pb.http_request("example.com"),
                                                   wire_length=512))
        self.client.emit(CONTROL_EVENT, {"type": "stop-scan"})

        messages = _control_messages(self.client)
        self.assertEqual([m["type"] for m in messages], [SCAN_STARTED, PACKET, SCAN_STOPPED])
        packet = messages[1]["packet"]
        self.assertEqual(packet["hostname"], "example.com")
        self.assertEqual(packet["size"], 512)

    def test_packets_not_sent_to_other_clients(self):
        other = self.socketio.test_client(self.app)
        try:
            _control_messages(other)
            self.client.emit(CONTROL_EVENT, {"type": "start-scan", "interface": "eth0"})
            self.backend.last_handle.feed(pb.tcp_frame())
            self.assertEqual(_control_messages(other), [])
        finally:
            other.disconnect()

    def test_snapshot_broadcast_to_all(self):
        other = self.socketio.test_client(self.app)
        try:
            _control_messages(self.client)
            _control_messages(other)
            self.engine.publisher.tick()
            self.assertEqual([m["type"] for m in _control_messages(self.client)], [USER_STATS])
            self.assertEqual([m["type"] for m in _control_messages(other)], [USER_STATS])
        finally:
            other.disconnect()

    def test_clear_stats(self):
        _control_messages(self.client)
        self.client.emit(CONTROL_EVENT, {"type": "clear-stats"})
        self.assertEqual(_control_messages(self.client), [{"type": STATS_CLEARED}])

    def test_json_text_message(self):
        _control_messages(self.client)
        self.client.emit(CONTROL_EVENT, '{"type": "get-interfaces"}')
        self.assertEqual(_control_messages(self.client)[0]["type"], INTERFACES)

    def test_disconnect_stops_owned_capture(self):
        self.client.emit(CONTROL_EVENT, {"type": "start-scan", "interface": "eth0"})
        handle = self.backend.last_handle
        self.client.disconnect()
        self.assertTrue(handle.closed)
        self.assertEqual(self.engine.observers, [])


class HttpEndpointTests(unittest.TestCase):
    def setUp(self):
        self.backend = FakeBackend(interfaces=("eth0",))
        self.app, self.socketio, self.engine = create_app(ServerConfig(), self.backend)
        self.http = self.app.test_client()

    def test_interfaces(self):
        response = self.http.get("/api/interfaces")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json(), [{"name": "eth0"}])

    def test_stats(self):
        self.engine.aggregator.record(describe_frame(pb.tcp_frame(src="10.0.0.5")))
        response = self.http.get("/api/stats")
        self.assertEqual(response.status_code, 200)
        self.assertEqual([entry["ip"] for entry in response.get_json()], ["10.0.0.5"])


if __name__ == "__main__":
    unittest.main()
