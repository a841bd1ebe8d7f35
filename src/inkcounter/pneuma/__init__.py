"""
Pneuma - On-chain interaction layer for the counter contract.

Provides the selector codec, JSON-RPC transport, endpoint resolution,
transaction building, the local simulation and the ContractClient façade.

Uses websockets + httpx for transport and eth-account for signing instead
of a full chain SDK.
"""
