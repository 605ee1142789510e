"""Tests for change narration."""
import io

import pytest

from cft_orchestrator.changes import Change, humanize_resource_type, narrate_changes


@pytest.mark.parametrize(
  "resource_type, expected",
  [
    ("AWS::EC2::NetworkAcl", "ec2 network acl"),
    ("AWS::IAM::Role", "iam role"),
    ("AWS::S3::Bucket", "s3 bucket"),
    ("AWS::ElasticLoadBalancingV2::TargetGroup", "elastic load balancing v2 target group"),
    ("Custom::DNSRecord", "custom dns record"),
  ],
)
def test_humanize_resource_type(resource_type, expected):
  assert humanize_resource_type(resource_type) == expected


def test_narrate_no_changes():
  out = io.StringIO()
  narrate_changes([], out)
  assert out.getvalue() == "No changes.\n"


def test_narrate_table():
  out = io.StringIO()
  narrate_changes(
    [
      Change({
        "ResourceChange": {
          "Action": "Add",
          "LogicalResourceId": "Bucket",
          "ResourceType": "AWS::S3::Bucket",
        }
      }),
      Change({
        "ResourceChange": {
          "Action": "Modify",
          "LogicalResourceId": "Role",
          "PhysicalResourceId": "app-role",
          "ResourceType": "AWS::IAM::Role",
          "Replacement": "True",
          "Scope": ["Properties"],
        }
      }),
    ],
    out,
  )
  lines = out.getvalue().splitlines()
  assert len(lines) == 4
  assert lines[0].startswith("ACTION")
  assert "REPLACEMENT" in lines[0]
  assert set(lines[1]) <= {"-", "+"}
  assert lines[2].split(" | ")[0].strip() == "Add"
  assert [cell.strip() for cell in lines[3].split(" | ")] == [
    "Modify", "Role", "app-role", "iam role", "True", "Properties"
  ]
