# Services package init
"""
SnapStream Backend — Services Layer
=====================================

Service Inventory:
    - FileService:     upload validation and on-disk staging
    - hashtag_index:   hashtag parsing and snap_hashtags rows
    - SnapService:     upload transaction and single-snap reads
    - FeedService:     paginated feed assembly
    - ExpiryReaper:    scheduled deletion of expired snaps
    - AuthService:     signup, login, bearer tokens
    - SnapBroadcaster: live `new_snap` fan-out over WebSockets

Services take the AsyncSession they work in as an argument and never
touch HTTP objects.
"""
