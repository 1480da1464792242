import socket

from aiortpuri.multicast import address_family, is_multicast, wildcard_address

from .utils import TestCase


class MulticastTest(TestCase):
    def test_ipv4(self) -> None:
        self.assertTrue(is_multicast("239.0.0.1"))
        self.assertTrue(is_multicast("224.0.0.251"))
        self.assertFalse(is_multicast("192.168.1.1"))
        self.assertFalse(is_multicast("0.0.0.0"))

    def test_ipv6(self) -> None:
        self.assertTrue(is_multicast("ff02::1"))
        self.assertTrue(is_multicast("[ff0e::1234]"))
        self.assertFalse(is_multicast("::1"))

    def test_host_name_is_unicast(self) -> None:
        self.assertFalse(is_multicast("localhost"))
        self.assertFalse(is_multicast(""))

    def test_family(self) -> None:
        self.assertEqual(address_family("10.0.0.1"), socket.AF_INET)
        self.assertEqual(address_family("ff02::1"), socket.AF_INET6)
        self.assertEqual(address_family("example.com"), socket.AF_INET)
        self.assertEqual(wildcard_address("::1"), "::")
        self.assertEqual(wildcard_address("127.0.0.1"), "0.0.0.0")
