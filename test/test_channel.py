from lensprobe.lenses.channel import LensChannel

URI = "file:///project/src/main/java/Foo.java"
OTHER_URI = "file:///project/src/main/java/Bar.java"


class TestPublish:
    def test_delivers_in_publish_order(self, lens):
        channel = LensChannel()
        received = []
        channel.subscribe(lambda uri, snapshot: received.append((uri, snapshot)))

        first = [lens("a")]
        second = [lens("b")]
        channel.publish(URI, first)
        channel.publish(URI, second)

        assert received == [(URI, first), (URI, second)]

    def test_fans_out_to_every_subscriber(self, lens):
        channel = LensChannel()
        seen_a = []
        seen_b = []
        channel.subscribe(lambda uri, snapshot: seen_a.append(snapshot))
        channel.subscribe(lambda uri, snapshot: seen_b.append(snapshot))

        channel.publish(URI, [lens("a")])

        assert len(seen_a) == 1
        assert len(seen_b) == 1

    def test_no_subscribers_only_records_latest(self, lens):
        channel = LensChannel()
        channel.publish(URI, [lens("a")])

        assert len(channel) == 0
        assert [l.command.command for l in channel.latest(URI)] == ["a"]

    def test_unsubscribe_stops_delivery(self, lens):
        channel = LensChannel()
        received = []
        subscriber = channel.subscribe(lambda uri, snapshot: received.append(snapshot))

        assert channel.unsubscribe(subscriber)
        channel.publish(URI, [lens("a")])

        assert received == []
        assert not channel.unsubscribe(subscriber)


class TestLatest:
    def test_empty_when_nothing_published(self):
        channel = LensChannel()
        assert channel.latest() == []
        assert channel.latest(URI) == []

    def test_keeps_only_most_recent_per_document(self, lens):
        channel = LensChannel()
        channel.publish(URI, [lens("a")])
        channel.publish(URI, [lens("b"), lens("c")])

        assert [l.command.command for l in channel.latest(URI)] == ["b", "c"]

    def test_without_uri_returns_most_recent_document(self, lens):
        channel = LensChannel()
        channel.publish(URI, [lens("a")])
        channel.publish(OTHER_URI, [lens("b")])

        assert [l.command.command for l in channel.latest()] == ["b"]
        assert [l.command.command for l in channel.latest(URI)] == ["a"]

    def test_returns_copy(self, lens):
        channel = LensChannel()
        channel.publish(URI, [lens("a")])

        channel.latest(URI).clear()

        assert len(channel.latest(URI)) == 1

    def test_clear(self, lens):
        channel = LensChannel()
        channel.publish(URI, [lens("a")])
        channel.clear()
        assert channel.latest() == []
