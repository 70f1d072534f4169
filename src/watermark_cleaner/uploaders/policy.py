class Policy:
    """Minio bucket policies."""

    @classmethod
    def public_read_only(cls, bucket_name: str, prefix: str) -> dict:
        """Return a policy allowing anonymous reads of objects under `prefix`."""
        return {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Principal": {"AWS": "*"},
                    "Action": "s3:GetObject",
                    "Resource": f"arn:aws:s3:::{bucket_name}/{prefix}/*",
                },
            ],
        }
