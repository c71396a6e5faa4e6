from aws_cdk import (
    aws_cloudfront as cloudfront,
    aws_cloudfront_origins as origins,
    aws_elasticloadbalancingv2 as elbv2,
)
from constructs import Construct

from .admission import edge_headers
from .secret import OriginSecret


class DistributionResources(Construct):
    def __init__(
        self,
        scope: Construct,
        id: str,
        application_load_balancer: elbv2.IApplicationLoadBalancer,
        origin_secret: OriginSecret,
    ) -> None:
        super().__init__(scope, id)

        # the listener only speaks http, and it only forwards requests that
        # carry the secret header added here
        self.origin = origins.LoadBalancerV2Origin(
            application_load_balancer,
            custom_headers=edge_headers(origin_secret),
            protocol_policy=cloudfront.OriginProtocolPolicy.HTTP_ONLY,
        )

        self.distribution = cloudfront.Distribution(
            self, "Distribution",
            default_behavior=cloudfront.BehaviorOptions(
                origin=self.origin,
                viewer_protocol_policy=cloudfront.ViewerProtocolPolicy.REDIRECT_TO_HTTPS,
                allowed_methods=cloudfront.AllowedMethods.ALLOW_ALL,
                cache_policy=cloudfront.CachePolicy.CACHING_DISABLED,
                origin_request_policy=cloudfront.OriginRequestPolicy.ALL_VIEWER,
            ),
        )
