"""
stakeledger Core Module

Shared building blocks for the accounting ledgers:
- Execution environment (clock, atomic transactions)
- Token collaborator (in-memory ERC20, safe transfer helpers)
- Access control and reentrancy guard
- Exception hierarchy, events, logging and configuration
"""

__all__ = []
