"""CarePublish: content approval workflow for healthcare facilities."""
