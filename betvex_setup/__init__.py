"""BetVEX Setup Player.

Provisions and drives an end-to-end test environment for the ``BetVEX``
betting contract on NEAR testnet.
"""

__version__ = "0.1.0"
