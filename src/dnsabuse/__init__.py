"""dnsabuse — useless but fun facts served over DNS.

Each feature owns a DNS zone label (``dice.``, ``rand.``, ``fx.`` ...)
and answers queries under it with synthetic records::

    dig @localhost -p 5354 2d6.dice TXT
    dig @localhost -p 5354 help TXT
"""

__version__ = "0.1.0"
