"""Runtime around the signal engine: settings, subscriptions, candle feed and tick scheduler."""
