from vastu_api.models.site_analytics import PageAnalyticsArchive  # noqa: F401
