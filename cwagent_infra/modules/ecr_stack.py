from aws_cdk import (
    aws_ecr as ecr,
    CfnOutput,
    Stack
)

from constructs import Construct

class EcrStack(Stack):
    def __init__(self, scope: Construct, id: str, repository_name, **kwargs):
        super().__init__(scope, id, **kwargs)

        self.app_repo = ecr.Repository(self, "SSSECR", repository_name=repository_name,
            image_scan_on_push=True
        )
        CfnOutput(self, "AppEcrRepoUri", value=self.app_repo.repository_uri, description="ECR URI for the Spring Boot app image. Push the image the Fargate service runs here.")
