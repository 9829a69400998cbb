"""Customer order confirmation: composition and mail transports."""
