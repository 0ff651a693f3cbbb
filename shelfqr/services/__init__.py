"""
Services module for business logic separation.

Service classes take an AsyncSession and encapsulate queries and writes,
keeping them separate from API endpoints and database models:
- qr_resolver / event_logger / background_tasks: scan and click attribution
- membership_service / collection_service: shop roles and collection access
- subscriber_service / export_service: collection sign-ups and CSV exports
- metadata_service / qr_image_service: product link previews and QR images
"""
