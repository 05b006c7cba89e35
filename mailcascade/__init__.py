"""mailcascade: multi-provider transactional email delivery with ordered fallback."""
