"""GraphQL documents sent to Stash."""

from __future__ import annotations

_SCENE_FIELDS = """
  fragment SceneFields on Scene {
    id
    title
    date
    rating100
    o_counter
    studio { id name }
    performers { id name image_path }
    tags { id name }
    files { id path duration width height }
    paths { screenshot preview stream webp vtt }
    sceneStreams { url mime_type label }
  }
"""

_MARKER_FIELDS = """
  fragment SceneMarkerFields on SceneMarker {
    id
    title
    seconds
    end_seconds
    stream
    preview
    primary_tag { id name }
    tags { id name }
  }
"""

FIND_SCENE_MARKERS = (
    _MARKER_FIELDS
    + _SCENE_FIELDS
    + """
  query FindSceneMarkers($filter: FindFilterType, $scene_marker_filter: SceneMarkerFilterType) {
    findSceneMarkers(filter: $filter, scene_marker_filter: $scene_marker_filter) {
      count
      scene_markers {
        ...SceneMarkerFields
        scene { ...SceneFields }
      }
    }
  }
"""
)

GET_MARKER_COUNT = """
  query GetMarkerCount($filter: FindFilterType, $scene_marker_filter: SceneMarkerFilterType) {
    findSceneMarkers(filter: $filter, scene_marker_filter: $scene_marker_filter) {
      count
    }
  }
"""

FIND_SCENES = (
    _SCENE_FIELDS
    + """
  query FindScenes($filter: FindFilterType, $scene_filter: SceneFilterType) {
    findScenes(filter: $filter, scene_filter: $scene_filter) {
      count
      scenes {
        ...SceneFields
        scene_markers { id }
      }
    }
  }
"""
)

GET_SCENE_COUNT = """
  query GetSceneCount($filter: FindFilterType, $scene_filter: SceneFilterType) {
    findScenes(filter: $filter, scene_filter: $scene_filter) {
      count
    }
  }
"""

FIND_TAGS = """
  query FindTags($filter: FindFilterType, $tag_filter: TagFilterType) {
    findTags(filter: $filter, tag_filter: $tag_filter) {
      tags { id name }
    }
  }
"""

FIND_PERFORMERS = """
  query FindPerformers($filter: FindFilterType, $performer_filter: PerformerFilterType) {
    findPerformers(filter: $filter, performer_filter: $performer_filter) {
      performers { id name image_path }
    }
  }
"""

GET_SAVED_MARKER_FILTERS = """
  query GetSavedMarkerFilters {
    findSavedFilters(mode: SCENE_MARKERS) {
      id
      name
    }
  }
"""

GET_SAVED_FILTER = """
  query GetSavedFilter($id: ID!) {
    findSavedFilter(id: $id) {
      id
      name
      mode
      find_filter { q per_page page sort direction }
      object_filter
    }
  }
"""

SCENE_UPDATE = """
  mutation SceneUpdate($input: SceneUpdateInput!) {
    sceneUpdate(input: $input) { id }
  }
"""

SCENE_ADD_O = """
  mutation SceneAddO($id: ID!, $times: [Timestamp!]) {
    sceneAddO(id: $id, times: $times) { count }
  }
"""

SCENE_MARKER_UPDATE = """
  mutation SceneMarkerUpdate(
    $id: ID!, $title: String!, $seconds: Float!, $end_seconds: Float,
    $scene_id: ID!, $primary_tag_id: ID!, $tag_ids: [ID!]!
  ) {
    sceneMarkerUpdate(input: {
      id: $id, title: $title, seconds: $seconds, end_seconds: $end_seconds,
      scene_id: $scene_id, primary_tag_id: $primary_tag_id, tag_ids: $tag_ids
    }) {
      id
      tags { id name }
    }
  }
"""
