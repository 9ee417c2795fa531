"""Core broker logic, independent of the web framework.

Module Structure:
    - callback.py        : CallbackStateMachine (redirect → Outcome)
    - outcome.py         : Outcome variants
    - models.py          : CallbackRequest, AuthenticationAttempt, FederatedIdentity
    - token_exchange.py  : TokenExchangeClient (code → raw token response)
    - mappers/           : IdentityMapper contract, JSON mapper, registry
    - sessions.py        : AuthenticationSessionRegistry and Flask-session store
    - audit.py           : Signed JSONL audit trail
    - exceptions.py      : Broker exception hierarchy

Usage Pattern:
    These modules are NOT auto-imported. Import explicitly when needed:
        from idp_broker.core.callback import CallbackStateMachine
        from idp_broker.core.outcome import Success, Cancelled
"""
