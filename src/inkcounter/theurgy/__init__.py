"""
Theurgy - Command implementations for the counter CLI.

- counter: query / increment / decrement / shell
- deploy:  upload and instantiate the contract
- session: UI-facing state (value, error, in-flight) over the client
"""
