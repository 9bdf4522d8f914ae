"""Scripted engine whose identity and info strings are Latin-1, not UTF-8."""

import sys

from fake_uci_engine import FakeEngine


class Latin1Engine(FakeEngine):
    def _write_raw(self, data: bytes) -> None:
        sys.stdout.flush()
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()

    def handle_uci(self, _: str) -> None:
        self._write_raw(b"id name FakeFish 1.0\nid author Fran\xe7ois\n")
        print("uciok")

    def report(self, depth: int) -> None:
        self._write_raw(b"info string caf\xe9 au lait\n")
        super().report(depth)


if __name__ == "__main__":
    Latin1Engine().start()
