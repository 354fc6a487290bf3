"""HealthyAura client — session, reviews, moderation, rewards and recommendations over the HealthyAura API."""
