from ccmeter.state import ServiceStatus, StatePublisher, UsageState


class TestStatePublisher:
    def test_delivers_to_every_subscriber(self) -> "None":
        publisher = StatePublisher()
        first: "list[UsageState]" = []
        second: "list[UsageState]" = []
        publisher.subscribe(first.append)
        publisher.subscribe(second.append)

        state = UsageState(status=ServiceStatus.REFRESHING)
        publisher.publish(state)

        assert first == [state]
        assert second == [state]

    def test_unsubscribe(self) -> "None":
        publisher = StatePublisher()
        seen: "list[UsageState]" = []
        unsubscribe = publisher.subscribe(seen.append)

        unsubscribe()
        # a second call is harmless
        unsubscribe()
        publisher.publish(UsageState())

        assert seen == []

    def test_failing_subscriber_does_not_block_others(self) -> "None":
        publisher = StatePublisher()
        seen: "list[UsageState]" = []

        def broken(state: "UsageState") -> "None":
            raise RuntimeError("render failed")

        publisher.subscribe(broken)
        publisher.subscribe(seen.append)
        publisher.publish(UsageState())

        assert len(seen) == 1


class TestUsageState:
    def test_defaults(self) -> "None":
        state = UsageState()
        assert state.status is ServiceStatus.IDLE
        assert state.window is None
        assert state.today.total_tokens == 0
        assert state.is_loading is False
        assert state.is_active is False
