"""CI providers able to authenticate a bundle upload."""
