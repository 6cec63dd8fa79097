from collections import Counter

import gevent
import pytest

from betvex_setup.exceptions import ConfigurationError
from betvex_setup.signers import SignerPool


@pytest.fixture
def pool():
    return SignerPool({"main": ["m1", "m2", "m3"], "admin": ["a1", "a2"]})


class TestSignerPool:
    def test_next_credential_rotates_in_order(self, pool):
        assert [pool.next_credential("main") for _ in range(7)] == [
            "m1",
            "m2",
            "m3",
            "m1",
            "m2",
            "m3",
            "m1",
        ]

    @pytest.mark.parametrize("rounds", [1, 2, 5])
    def test_every_key_is_used_equally_often(self, pool, rounds):
        used = Counter(pool.next_credential("main") for _ in range(3 * rounds))
        assert used == {"m1": rounds, "m2": rounds, "m3": rounds}

    def test_principals_rotate_independently(self, pool):
        assert pool.next_credential("main") == "m1"
        assert pool.next_credential("admin") == "a1"
        assert pool.next_credential("admin") == "a2"
        assert pool.next_credential("main") == "m2"
        assert pool.next_credential("admin") == "a1"

    def test_single_key_is_always_returned(self):
        pool = SignerPool({"main": ["only"]})
        assert {pool.next_credential("main") for _ in range(5)} == {"only"}

    def test_size_and_contains(self, pool):
        assert pool.size("main") == 3
        assert pool.size("admin") == 2
        assert "main" in pool
        assert "bettor" not in pool

    def test_empty_key_list_is_rejected(self):
        with pytest.raises(ConfigurationError):
            SignerPool({"main": ["m1"], "admin": []})

    def test_unknown_principal_raises(self, pool):
        with pytest.raises(ConfigurationError):
            pool.next_credential("bettor")

    def test_repr_does_not_leak_keys(self, pool):
        assert "m1" not in repr(pool)
        assert "'main': 3" in repr(pool)

    def test_concurrent_greenlets_are_served_fairly(self):
        keys = [f"k{n}" for n in range(10)]
        pool = SignerPool({"main": keys})

        def take():
            gevent.sleep(0)
            return pool.next_credential("main")

        greenlets = [gevent.spawn(take) for _ in range(30)]
        gevent.joinall(greenlets, raise_error=True)

        assert Counter(g.value for g in greenlets) == {key: 3 for key in keys}
