"""Shared feed documents for tests."""

import pytest

ALBUM_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd"
     xmlns:podcast="https://podcastindex.org/namespace/1.0">
  <channel>
    <title>Stay Awhile</title>
    <itunes:author>Able Kirby</itunes:author>
    <description><![CDATA[<p>An album by <b>Able Kirby</b> &amp; friends</p>]]></description>
    <link>https://example.com/stay-awhile</link>
    <language>en</language>
    <pubDate>Mon, 06 Jan 2025 12:00:00 GMT</pubDate>
    <podcast:guid>album-guid-1</podcast:guid>
    <itunes:image href="https://example.com/cover.jpg"/>
    <itunes:explicit>false</itunes:explicit>
    <podcast:value type="lightning" method="keysend" suggested="0.00000005000">
      <podcast:valueRecipient name="Able Kirby" type="node" address="02abc" split="90"/>
      <podcast:valueRecipient name="Host" type="node" address="03def" split="10" fee="true"/>
    </podcast:value>
    <podcast:publisher>
      <podcast:remoteItem medium="publisher" feedGuid="pub-guid" feedUrl="https://example.com/publisher.xml"/>
    </podcast:publisher>
    <podcast:podroll>
      <podcast:remoteItem feedGuid="roll-guid" feedUrl="https://example.com/other.xml" title="Other Album"/>
    </podcast:podroll>
    <podcast:funding url="https://example.com/support">Support the band</podcast:funding>
    <item>
      <title>Track One</title>
      <itunes:duration>3:45</itunes:duration>
      <enclosure url="https://example.com/1.mp3" type="audio/mpeg" length="1"/>
      <guid>track-1</guid>
    </item>
    <item>
      <title>Track Two</title>
      <itunes:duration>1:02:03</itunes:duration>
      <guid>track-2</guid>
    </item>
    <item>
      <title>Track Three</title>
      <itunes:duration>90</itunes:duration>
      <enclosure url="https://example.com/3.mp3" type="audio/mpeg" length="1"/>
      <podcast:value type="lightning" method="keysend">
        <podcast:valueRecipient name="Guest" type="node" address="04aaa" split="100"/>
      </podcast:value>
    </item>
  </channel>
</rss>
"""

PUBLISHER_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd"
     xmlns:podcast="https://podcastindex.org/namespace/1.0">
  <channel>
    <title>Label Records</title>
    <itunes:author>Label Records</itunes:author>
    <podcast:guid>pub-guid</podcast:guid>
    <itunes:image href="https://example.com/label.jpg"/>
    <podcast:remoteItem medium="music" feedGuid="a1" feedUrl="https://example.com/a1.xml" title="First"/>
    <podcast:remoteItem medium="music" feedGuid="a2" feedUrl="https://example.com/a2.xml"/>
    <podcast:remoteItem medium="music" feedGuid="a3"/>
    <podcast:remoteItem medium="podcast" feedGuid="p1" feedUrl="https://example.com/p1.xml"/>
  </channel>
</rss>
"""


@pytest.fixture
def album_feed_xml() -> str:
    return ALBUM_FEED


@pytest.fixture
def publisher_feed_xml() -> str:
    return PUBLISHER_FEED
