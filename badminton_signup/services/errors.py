from __future__ import annotations


class RosterError(Exception): ...
class NotFound(RosterError): ...
class AuthFailure(RosterError): ...
class InvalidState(RosterError): ...
class StoreFailure(RosterError): ...
