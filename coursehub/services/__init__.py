"""Services Module - flag evaluation, targeting, user and settings stores."""
