"""
Encoding profiles for the MediaLive channel.

Each profile selects a ladder of H.264 renditions written as HLS to S3. The
settings returned here use the MediaLive API (boto3) shapes.
"""

from typing import Any, Dict, List

# width, height, video bitrate, audio bitrate
RENDITIONS = {
    "1080p": (1920, 1080, 6000000, 128000),
    "720p": (1280, 720, 3000000, 128000),
    "540p": (960, 540, 1800000, 96000),
    "432p": (768, 432, 1200000, 96000),
    "360p": (640, 360, 800000, 96000),
    "288p": (512, 288, 400000, 64000),
}

PROFILES = {
    "HD-1080p": {
        "renditions": ["1080p", "720p", "540p", "432p", "360p", "288p"],
        "resolution": "HD",
        "maximum_bitrate": "MAX_20_MBPS",
    },
    "HD-720p": {
        "renditions": ["720p", "540p", "432p", "360p", "288p"],
        "resolution": "HD",
        "maximum_bitrate": "MAX_10_MBPS",
    },
    "SD-540p": {
        "renditions": ["540p", "432p", "360p", "288p"],
        "resolution": "SD",
        "maximum_bitrate": "MAX_10_MBPS",
    },
}

DESTINATION_ID = "destination1"
SEGMENT_LENGTH_SECONDS = 6


def get_profile(name: str) -> Dict[str, Any]:
    """Look up an encoding profile, raising ValueError for unknown names."""
    try:
        return PROFILES[name]
    except KeyError:
        raise ValueError(
            f"Unknown encoding profile '{name}', expected one of {sorted(PROFILES)}"
        )


def input_specification(profile_name: str, codec: str) -> Dict[str, str]:
    profile = get_profile(profile_name)
    return {
        "Codec": codec,
        "Resolution": profile["resolution"],
        "MaximumBitrate": profile["maximum_bitrate"],
    }


def _video_description(name: str, width: int, height: int, bitrate: int) -> Dict[str, Any]:
    return {
        "Name": f"video_{name}",
        "Width": width,
        "Height": height,
        "RespondToAfd": "NONE",
        "ScalingBehavior": "DEFAULT",
        "Sharpness": 50,
        "CodecSettings": {
            "H264Settings": {
                "Bitrate": bitrate,
                "RateControlMode": "CBR",
                "Profile": "HIGH" if height >= 720 else "MAIN",
                "Level": "H264_LEVEL_AUTO",
                "AdaptiveQuantization": "HIGH",
                "FramerateControl": "INITIALIZE_FROM_SOURCE",
                "GopSize": 2,
                "GopSizeUnits": "SECONDS",
                "GopBReference": "ENABLED",
                "GopNumBFrames": 3,
                "GopClosedCadence": 1,
                "SceneChangeDetect": "ENABLED",
                "ParControl": "SPECIFIED",
                "ParNumerator": 1,
                "ParDenominator": 1,
                "AfdSignaling": "NONE",
                "ColorMetadata": "INSERT",
                "EntropyEncoding": "CABAC",
                "Syntax": "DEFAULT",
                "TimecodeInsertion": "DISABLED",
            }
        },
    }


def _audio_description(name: str, bitrate: int) -> Dict[str, Any]:
    return {
        "Name": f"audio_{name}",
        "AudioSelectorName": "default",
        "AudioTypeControl": "FOLLOW_INPUT",
        "LanguageCodeControl": "FOLLOW_INPUT",
        "CodecSettings": {
            "AacSettings": {
                "Bitrate": bitrate,
                "CodingMode": "CODING_MODE_2_0",
                "InputType": "NORMAL",
                "Profile": "LC",
                "RateControlMode": "CBR",
                "RawFormat": "NONE",
                "SampleRate": 48000,
                "Spec": "MPEG4",
            }
        },
    }


def _hls_output(name: str) -> Dict[str, Any]:
    return {
        "OutputName": name,
        "VideoDescriptionName": f"video_{name}",
        "AudioDescriptionNames": [f"audio_{name}"],
        "OutputSettings": {
            "HlsOutputSettings": {
                "NameModifier": f"_{name}",
                "HlsSettings": {
                    "StandardHlsSettings": {
                        "AudioRenditionSets": "program_audio",
                        "M3u8Settings": {
                            "AudioFramesPerPes": 4,
                            "AudioPids": "492-498",
                            "PcrControl": "PCR_EVERY_PES_PACKET",
                            "PmtPid": "480",
                            "ProgramNum": 1,
                            "Scte35Behavior": "NO_PASSTHROUGH",
                            "TimedMetadataBehavior": "NO_PASSTHROUGH",
                            "VideoPid": "481",
                        },
                    }
                },
            }
        },
    }


def _hls_group_settings() -> Dict[str, Any]:
    return {
        "Destination": {"DestinationRefId": DESTINATION_ID},
        "HlsCdnSettings": {
            "HlsS3Settings": {"CannedAcl": "BUCKET_OWNER_FULL_CONTROL"},
        },
        "SegmentLength": SEGMENT_LENGTH_SECONDS,
        "IndexNSegments": 10,
        "KeepSegments": 21,
        "Mode": "LIVE",
        "OutputSelection": "MANIFESTS_AND_SEGMENTS",
        "ManifestCompression": "NONE",
        "DirectoryStructure": "SINGLE_DIRECTORY",
        "TsFileMode": "SEGMENTED_FILES",
        "ProgramDateTime": "EXCLUDE",
        "InputLossAction": "PAUSE_OUTPUT",
        "ClientCache": "ENABLED",
        "CodecSpecification": "RFC_4281",
        "StreamInfResolution": "INCLUDE",
        "TimedMetadataId3Frame": "PRIV",
        "TimedMetadataId3Period": 10,
    }


def encoder_settings(profile_name: str) -> Dict[str, Any]:
    """
    Build the channel EncoderSettings for an encoding profile.

    Every rendition gets its own video and audio description and one output in
    a single HLS output group.
    """
    names: List[str] = get_profile(profile_name)["renditions"]

    video_descriptions = []
    audio_descriptions = []
    outputs = []
    for name in names:
        width, height, video_bitrate, audio_bitrate = RENDITIONS[name]
        video_descriptions.append(_video_description(name, width, height, video_bitrate))
        audio_descriptions.append(_audio_description(name, audio_bitrate))
        outputs.append(_hls_output(name))

    return {
        "AudioDescriptions": audio_descriptions,
        "VideoDescriptions": video_descriptions,
        "OutputGroups": [
            {
                "Name": "HLS",
                "OutputGroupSettings": {"HlsGroupSettings": _hls_group_settings()},
                "Outputs": outputs,
            }
        ],
        "TimecodeConfig": {"Source": "SYSTEMCLOCK"},
    }


def destinations(bucket_name: str) -> List[Dict[str, Any]]:
    """Channel destination writing the HLS manifest to s3://<bucket>/stream/index.m3u8."""
    return [
        {
            "Id": DESTINATION_ID,
            "Settings": [{"Url": f"s3ssl://{bucket_name}/stream/index"}],
        }
    ]
