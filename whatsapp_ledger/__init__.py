"""WhatsApp Ledger: a chat-based money tracker behind the WhatsApp Cloud API."""
