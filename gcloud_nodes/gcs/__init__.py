"""
Cloud Storage write node

  - url      (gs://bucket/key parsing)
  - backend  (StorageBackend, GcsStorageBackend over google-cloud-storage)
  - node     (GcsWriteNode)
"""
