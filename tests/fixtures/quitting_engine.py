"""An engine that names itself and exits before finishing the handshake."""

import sys

sys.stdin.readline()
print("id name Quitter", flush=True)
