"""Mail transport adapters feeding MailSession."""
