"""notify/ -- Best-effort outbound mail for passgate.

Layer rule: notify/ imports only stdlib + third-party libraries + core/.
It does NOT import from api/ or auth/. auth/ hands it messages; api/ owns
the dispatcher's lifecycle.
"""
